"""Describes the PortionPerfect domain. Centres around the `Order`.

Why is this hard?

- Two people write the same order document. The customer rewrites the items,
  the shop rewrites the items and moves the status.
- There are no locks and no transactions. Last write wins.
- So the shop's stock marks survive a customer edit only because the editing
  side merges by item name before it writes.
- Both sides learn about the other through live query snapshots, and have to
  work out what changed themselves.

Recipe generation and geocoding sit behind apis. Should be able to fake those.
"""

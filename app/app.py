import asyncio
import contextlib
import functools
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, TypeAlias

from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import HTTPConnection, Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from app import config
from domain.cache import LocalCache
from domain.geocoding import Geocoder
from domain.lifecycle import LifecycleError, next_actions
from domain.llm_service import LLMService
from domain.models import Order, Profile, RecipeForm, Role, ShoppingList, Status
from domain.notifications import Notification, NotificationCenter, NotificationKind
from domain.orders import OrderNotFound, OrderRepository
from domain.profiles import InvalidProfile, ProfileRepository, normalise_phone
from domain.services import CustomerSession, OwnerBoard, find_profile, sign_in
from domain.store import DatabaseDocumentStore, DocumentStore, MemoryDocumentStore


logger = logging.getLogger(__name__)


CONFIG = config.Config()


Payload: TypeAlias = dict[str, Any] | list[Any]


def aJSONResponse(route: Callable[..., Awaitable[Payload | tuple[Payload, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> JSONResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            data, code = resp, 200
        else:
            data, code = resp
        return JSONResponse(data, status_code=code)

    return wrapper


def store_factory(cfg: config.Config) -> DocumentStore:
    if cfg.store_backend == config.StoreBackend.memory:
        return MemoryDocumentStore()
    return DatabaseDocumentStore(cfg.db_url)


def profile_from_payload(data: dict[str, Any]) -> Profile:
    try:
        return Profile.from_dict({**data, "phone": normalise_phone(str(data["phone"]))})
    except KeyError as e:
        raise InvalidProfile(f"Missing field {e}.") from e


def customer_session(conn: HTTPConnection) -> CustomerSession:
    session = conn.app.state.customers.get(conn.path_params["phone"])
    if session is None:
        raise HTTPException(404, "Sign in first.")
    return session


def owner_board(conn: HTTPConnection) -> OwnerBoard:
    board = conn.app.state.owners.get(conn.path_params["phone"])
    if board is None:
        raise HTTPException(404, "Sign in first.")
    return board


def order_payload(order: Order) -> dict[str, Any]:
    return {**order.to_dict(), "actions": [s.value for s in next_actions(order.status)]}


def board_payload(board: OwnerBoard) -> dict[str, Any]:
    return {
        "pending": [order_payload(o) for o in board.pending_orders],
        "active": [order_payload(o) for o in board.active_orders],
    }


async def open_session(app: Starlette, profile: Profile) -> CustomerSession | OwnerBoard:
    state = app.state
    sessions = state.customers if profile.role is Role.customer else state.owners
    previous = sessions.pop(profile.phone, None)
    if previous is not None:
        previous.stop()

    notifications = NotificationCenter(ttl=state.config.notification_ttl)
    session: CustomerSession | OwnerBoard
    if profile.role is Role.customer:
        session = CustomerSession(
            profile,
            orders=state.orders,
            profiles=state.profiles,
            llm=state.llm,
            notifications=notifications,
        )
    else:
        session = OwnerBoard(
            profile,
            orders=state.orders,
            notifications=notifications,
            cache=state.cache,
        )
    sessions[profile.phone] = session
    await session.start()
    return session


@aJSONResponse
async def lookup_profile(request: Request) -> Payload:
    role = Role(request.path_params["role"])
    profile = await find_profile(
        request.path_params["phone"], role, profiles=request.app.state.profiles
    )
    if profile is None:
        return {"exists": False}
    return {"exists": True, "profile": profile.to_dict()}


@aJSONResponse
async def locate(request: Request) -> Payload:
    try:
        lat = float(request.query_params["lat"])
        lng = float(request.query_params["lng"])
    except (KeyError, ValueError) as e:
        raise HTTPException(400, "Provide lat and lng.") from e
    geocoder: Geocoder = request.app.state.geocoder
    return {"lat": lat, "lng": lng, "location": await geocoder.describe(lat, lng)}


@aJSONResponse
async def sign_in_route(request: Request) -> Payload:
    profile = profile_from_payload(await request.json())
    await sign_in(
        profile,
        profiles=request.app.state.profiles,
        geocoder=request.app.state.geocoder,
        cache=request.app.state.cache,
    )
    session = await open_session(request.app, profile)
    session.notifications.notify(
        "Welcome Back",
        f"Successfully signed in as {profile.name}.",
        NotificationKind.success,
    )
    return profile.to_dict()


@aJSONResponse
async def sign_out(request: Request) -> Payload:
    role = Role(request.path_params["role"])
    sessions = request.app.state.customers if role is Role.customer else request.app.state.owners
    session = sessions.pop(request.path_params["phone"], None)
    if session is not None:
        session.stop()
    request.app.state.cache.clear_profile(role)
    return {"signedOut": session is not None}


@aJSONResponse
async def generate_recipe(request: Request) -> Payload | tuple[Payload, int]:
    session = customer_session(request)
    data = await request.json()
    form = RecipeForm(
        dish_name=str(data.get("dishName", "")),
        people_count=int(data.get("peopleCount", 2)),
        restrictions=str(data.get("restrictions", "")),
    )
    recipe = await session.generate(form)
    if recipe is None:
        return {"error": session.error}, 502
    return {**recipe.to_dict(), "html": recipe.html}


@aJSONResponse
async def nearby_shops(request: Request) -> Payload:
    session = customer_session(request)
    shops = await session.load_nearby_shops()
    return [s.to_dict() for s in shops]


@aJSONResponse
async def edit_shopping_list(request: Request) -> Payload | tuple[Payload, int]:
    session = customer_session(request)
    if session.recipe is None:
        return {"error": "Generate a recipe first."}, 409
    shopping_list = ShoppingList.from_dict(await request.json())
    await session.edit_shopping_list(shopping_list)
    return shopping_list.to_dict()


@aJSONResponse
async def send_to_shop(request: Request) -> Payload | tuple[Payload, int]:
    session = customer_session(request)
    shop_phone = request.path_params["shop_phone"]
    shop = next((s for s in session.shops if s.phone == shop_phone), None)
    if shop is None:
        return {"error": f"Unknown shop {shop_phone}."}, 404
    if session.recipe is None:
        return {"error": "Generate a recipe first."}, 409
    return {"orderId": await session.send_or_update(shop)}


@aJSONResponse
async def send_to_nearest(request: Request) -> Payload | tuple[Payload, int]:
    session = customer_session(request)
    if session.recipe is None:
        return {"error": "Generate a recipe first."}, 409
    await session.load_nearby_shops()
    return {"orderIds": await session.send_to_nearest(request.path_params["count"])}


@aJSONResponse
async def customer_orders(request: Request) -> Payload:
    return [o.to_dict() for o in customer_session(request).orders]


@aJSONResponse
async def owner_orders(request: Request) -> Payload:
    return board_payload(owner_board(request))


@aJSONResponse
async def update_status(request: Request) -> Payload:
    board = owner_board(request)
    data = await request.json()
    await board.update_status(request.path_params["order_id"], Status(data.get("status", "")))
    return board_payload(board)


@aJSONResponse
async def toggle_item(request: Request) -> Payload | tuple[Payload, int]:
    board = owner_board(request)
    items = await board.toggle_item(
        request.path_params["order_id"], request.path_params["index"]
    )
    if items is None:
        return {"error": "Items can only be reviewed on accepted orders."}, 409
    return [i.to_dict() for i in items]


@aJSONResponse
async def dismiss_notification(request: Request) -> Payload:
    role = Role(request.path_params["role"])
    session = customer_session(request) if role is Role.customer else owner_board(request)
    session.notifications.dismiss(request.path_params["id"])
    return [n.to_dict() for n in session.notifications.notifications]


async def live(ws: WebSocket) -> None:
    """Order snapshots and notifications for one signed in user."""
    role = Role(ws.path_params["role"])
    sessions = ws.app.state.customers if role is Role.customer else ws.app.state.owners
    session: CustomerSession | OwnerBoard | None = sessions.get(ws.path_params["phone"])
    if session is None:
        await ws.close(code=4404)
        return
    await ws.accept()

    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def on_orders(orders: list[Order]) -> None:
        queue.put_nowait({"type": "orders", "orders": [o.to_dict() for o in orders]})

    def on_notification(event: str, notification: Notification) -> None:
        queue.put_nowait(
            {"type": "notification", "event": event, "notification": notification.to_dict()}
        )

    session.listeners.append(on_orders)
    remove_listener = session.notifications.add_listener(on_notification)
    on_orders(session.orders)

    async def send() -> None:
        while True:
            await ws.send_json(await queue.get())

    async def receive() -> None:
        with contextlib.suppress(WebSocketDisconnect):
            while True:
                await ws.receive_text()

    tasks = [asyncio.create_task(send()), asyncio.create_task(receive())]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        if on_orders in session.listeners:
            session.listeners.remove(on_orders)
        remove_listener()


async def lifecycle_error(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=409)


async def bad_request(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400)


async def not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse({"error": f"Order {exc} not found."}, status_code=404)


def create_app(
    cfg: config.Config | None = None,
    *,
    store: DocumentStore | None = None,
    llm: LLMService | None = None,
    geocoder: Geocoder | None = None,
) -> Starlette:
    cfg = CONFIG if cfg is None else cfg

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logging.basicConfig(level=cfg.log_level, handlers=[RichHandler()])
        state = app.state
        state.config = cfg
        state.store = store_factory(cfg) if store is None else store
        await state.store.connect()
        state.profiles = ProfileRepository(state.store)
        state.orders = OrderRepository(state.store)
        state.llm = LLMService(model=cfg.core_model) if llm is None else llm
        state.geocoder = (
            Geocoder(base_url=cfg.geocoder_url, timeout=cfg.geocoder_timeout)
            if geocoder is None
            else geocoder
        )
        state.cache = LocalCache(cfg.cache_dir)
        state.customers = {}
        state.owners = {}
        for role in Role:
            cached = state.cache.load_profile(role)
            if cached is not None:
                await open_session(app, cached)
        yield
        for session in [*state.customers.values(), *state.owners.values()]:
            session.stop()
        await state.geocoder.close()
        await state.store.disconnect()

    return Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=[
            Route("/profiles/{role}/{phone}", lookup_profile, methods=["GET"]),
            Route("/locate", locate, methods=["GET"]),
            Route("/sign-in", sign_in_route, methods=["POST"]),
            Route("/sign-out/{role}/{phone}", sign_out, methods=["POST"]),
            Route("/customers/{phone}/recipe", generate_recipe, methods=["POST"]),
            Route("/customers/{phone}/shops", nearby_shops, methods=["GET"]),
            Route(
                "/customers/{phone}/shopping-list",
                edit_shopping_list,
                methods=["PUT"],
            ),
            Route(
                "/customers/{phone}/shops/{shop_phone}/order",
                send_to_shop,
                methods=["POST"],
            ),
            Route(
                "/customers/{phone}/nearest/{count:int}/order",
                send_to_nearest,
                methods=["POST"],
            ),
            Route("/customers/{phone}/orders", customer_orders, methods=["GET"]),
            Route("/owners/{phone}/orders", owner_orders, methods=["GET"]),
            Route(
                "/owners/{phone}/orders/{order_id}/status",
                update_status,
                methods=["POST"],
            ),
            Route(
                "/owners/{phone}/orders/{order_id}/items/{index:int}/toggle",
                toggle_item,
                methods=["POST"],
            ),
            Route(
                "/notifications/{role}/{phone}/{id}",
                dismiss_notification,
                methods=["DELETE"],
            ),
            WebSocketRoute("/live/{role}/{phone}", live),
        ],
        exception_handlers={
            LifecycleError: lifecycle_error,
            ValueError: bad_request,
            IndexError: bad_request,
            OrderNotFound: not_found,
        },
        lifespan=lifespan,
    )


app = create_app()

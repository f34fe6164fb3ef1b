from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager, suppress
import asyncio

from config import configure_logging, get_settings
from core.broadcast_loop import BroadcastLoop
from core.state_machine import CounterStateMachine
from api import websocket

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立唯一一份 state 和 broadcast loop
    state_machine = CounterStateMachine(get_settings().initial_value)
    broadcast_loop = BroadcastLoop(state_machine)
    app.state.broadcast_loop = broadcast_loop
    task = asyncio.create_task(broadcast_loop.run())
    yield
    # Shutdown: 停止 loop
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


app = FastAPI(
    title="Counter Sync Server",
    description="Real-time state synchronization server over WebSockets",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Counter Sync Server", "status": "ok"}


@app.get("/health")
def health(request: Request):
    broadcast_loop: BroadcastLoop = request.app.state.broadcast_loop
    return {
        "status": "healthy",
        "connections": len(broadcast_loop.registry),
        "clients": broadcast_loop.registry.ids(),
        "revision": broadcast_loop.state.revision
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())

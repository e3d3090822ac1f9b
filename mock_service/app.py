import asyncio
import socket

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

DEFAULT_BODY = "hello, world"


def create_app(body: str = DEFAULT_BODY, latency_ms: int = 0) -> FastAPI:
    """A slow downstream service answering every GET with the same body."""
    app = FastAPI(title="Mock Service")

    @app.get("/{path:path}", response_class=PlainTextResponse)
    async def hello(path: str):
        if latency_ms:
            await asyncio.sleep(latency_ms / 1000)
        return body

    return app


def serve(body: str, latency_ms: int, port_queue, host: str = "127.0.0.1"):
    """Run the service on a free port and report the port on ``port_queue``.

    Meant as a ``multiprocessing.Process`` target, so the service does not
    share an interpreter with the client measuring it.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((host, 0))
    port_queue.put(sock.getsockname()[1])

    config = uvicorn.Config(create_app(body, latency_ms), log_level="warning", lifespan="off")
    uvicorn.Server(config).run(sockets=[sock])


app = create_app()


# Run with: uvicorn mock_service.app:app --port 8001 --reload

"""Minimal example showing codesync usage with Litestar.

This example mounts the collaboration hub into a plain Litestar application
using the plugin system.

The application will:
    - Keep room membership in an in-memory SessionRegistry
    - Accept collaboration WebSockets at /realtime/collab
    - Mount the read-only rooms API at /api
    - Make the registry, relay and lifecycle manager injectable in handlers

Running the Application:
    python examples/app.py

Then visit:
    - http://127.0.0.1:8000/schema - OpenAPI documentation
    - http://127.0.0.1:8000/api/rooms - Active rooms

Following a room from a terminal:
    CODESYNC_URL=ws://127.0.0.1:8000/realtime/collab \\
        litestar --app codesync.app:app collab watch room-1 --show-code
"""

from __future__ import annotations

from litestar import Litestar, get

from codesync import CodeSyncConfig, CodeSyncPlugin, HubSettings, SessionRegistry


@get("/rooms/{room_id:str}/size")
async def room_size(room_id: str, registry: SessionRegistry) -> dict[str, int]:
    """Report how many participants a room has."""
    return {"participants": len(registry.list_participants(room_id))}


app = Litestar(
    route_handlers=[room_size],
    plugins=[
        CodeSyncPlugin(
            CodeSyncConfig(
                # Serve WebSockets under /realtime instead of /ws
                settings=HubSettings(ws_path="/realtime", debug=True),
                # Enable the rooms API
                enable_api=True,
                api_path="/api",
            )
        )
    ],
    debug=True,
)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="127.0.0.1",
        port=8000,
        log_level="info",
    )

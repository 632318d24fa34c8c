from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

@router.get("/health")
def health(request: Request) -> dict[str, str]:  # type: ignore[misc]
    container = request.app.state.container
    return {
        "status": "ok",
        "store": container.settings.store_backend,
        "phase": container.coordinator.phase.value,
    }

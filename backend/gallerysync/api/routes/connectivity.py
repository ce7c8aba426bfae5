"""Reachability of the remote disk API."""

from fastapi import APIRouter

from gallerysync.schemas.system import ConnectivityStatus
from gallerysync.services import get_connectivity_monitor
from gallerysync.services.connectivity import Connected

router = APIRouter()


@router.get("", response_model=ConnectivityStatus)
async def connectivity_status(check: bool = False):
    """Current state; ``check=true`` runs a probe first."""
    monitor = get_connectivity_monitor()
    state = await monitor.check_now() if check else monitor.current_state()
    return ConnectivityStatus(
        state=state.name,
        connection_type=state.connection_type.value if isinstance(state, Connected) else None,
        is_online=state.is_online,
    )

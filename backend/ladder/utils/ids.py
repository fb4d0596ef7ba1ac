import uuid


def new_id() -> str:
    """Dash-free id; team ids join member ids with '-', so ids must not contain one."""
    return uuid.uuid4().hex

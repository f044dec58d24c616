from uuid import UUID

from fastapi import Header, HTTPException, status


async def get_school_id(
    x_school_id: str = Header(..., alias="X-School-Id", description="School (tenant) scope of the request"),
) -> UUID:
    """Dependency: resolve the school every timetable operation is scoped to.

    Identity is not verified here; callers in front of this service own authentication.
    """
    try:
        return UUID(x_school_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_SCHOOL", "message": "X-School-Id must be a UUID"},
        )

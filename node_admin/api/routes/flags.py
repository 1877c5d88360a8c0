from fastapi import APIRouter

from node_admin.flags import defined_flags_document

router = APIRouter(prefix="/flags/v1", tags=["flags"])


@router.get("/defined")
def get_defined_flags():
    return defined_flags_document()

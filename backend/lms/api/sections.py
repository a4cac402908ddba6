"""
Sections API: GET/PATCH/DELETE /sections/{id}, GET /sections/{id}/modules, PUT /sections/{id}/modules/order.
Deleting a section keeps its modules as standalone modules.
"""
import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lms.api.courses import section_to_response
from lms.api.deps import get_auth_context
from lms.api.modules import module_to_response, reorder_to_response
from lms.database import get_db
from lms.permissions import AuthContext
from lms.schemas.course import ReorderRequest, ReorderResponse, SectionResponse, SectionUpdate
from lms.schemas.module import ModuleResponse
from lms.services import content_graph

router = APIRouter(prefix="/sections", tags=["sections"])


@router.get("/{section_id}", response_model=SectionResponse)
def get_section(section_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return section_to_response(content_graph.get_section(db, ctx, section_id))


@router.patch("/{section_id}", response_model=SectionResponse)
def update_section(
    section_id: uuid.UUID,
    data: SectionUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    section = content_graph.update_section(db, ctx, section_id, data.model_dump(exclude_unset=True))
    return section_to_response(section)


@router.delete("/{section_id}", response_model=list[ModuleResponse])
def delete_section(section_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Returns the modules that became standalone."""
    modules = content_graph.detach_section(db, ctx, section_id)
    return [module_to_response(m) for m in modules]


@router.get("/{section_id}/modules", response_model=list[ModuleResponse])
def list_section_modules(
    section_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return [module_to_response(m) for m in content_graph.list_modules(db, ctx, section_id=section_id)]


@router.put("/{section_id}/modules/order", response_model=ReorderResponse)
def reorder_modules(
    section_id: uuid.UUID,
    data: ReorderRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    rows = content_graph.reorder_children(db, ctx, section_id, "module", data.ordered_ids)
    return reorder_to_response(rows, "module")

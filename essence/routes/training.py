"""
Training prompt endpoint.
"""

from fastapi import APIRouter, Depends, Request

from essence.middleware.auth import get_owner_id
from essence.models import TrainingPrompt, TrainingPromptList
from essence.training_script import training_prompts

router = APIRouter()


@router.get(
    "/training/prompts",
    response_model=TrainingPromptList,
    dependencies=[Depends(get_owner_id)],
)
async def list_training_prompts(request: Request):
    """The line to read aloud for each recording slot."""
    slot_count = request.app.state.settings.training_slot_count
    return TrainingPromptList(
        prompts=[
            TrainingPrompt(slot_index=index, text=text)
            for index, text in enumerate(training_prompts(slot_count))
        ],
        total_required=slot_count,
    )

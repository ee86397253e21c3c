from __future__ import annotations

from typing import Optional, Sequence

EXCLUDED_MARKERS = ("guard", "whisper", "orpheus")


def select_model(model_ids: Sequence[str], preferred: Optional[str] = None) -> Optional[str]:
    """Pick a chat model: Llama 3, then Mixtral, then anything that is not
    a guard, speech or TTS model."""
    ids = [model_id for model_id in model_ids if model_id]
    if preferred and preferred in ids:
        return preferred
    for model_id in ids:
        if "llama-3" in model_id and "guard" not in model_id:
            return model_id
    for model_id in ids:
        if "mixtral" in model_id:
            return model_id
    for model_id in ids:
        if not any(marker in model_id for marker in EXCLUDED_MARKERS):
            return model_id
    return ids[0] if ids else None

# Probe Module - Remote API Checks

from .models import ModelInfo, ModelQueryResult, model_display_name, query_models

__all__ = ["ModelInfo", "ModelQueryResult", "model_display_name", "query_models"]

"""Model loading utilities"""

from .model_loader import ModelLoader, DlibModelLoader, check_models, get_dlib_predictor

__all__ = ["ModelLoader", "DlibModelLoader", "check_models", "get_dlib_predictor"]

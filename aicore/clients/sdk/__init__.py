from .base import GenerateTextResult, LanguageModel, SdkProvider, StreamTextResult

__all__ = ["GenerateTextResult", "LanguageModel", "SdkProvider", "StreamTextResult"]

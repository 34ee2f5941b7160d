from .assemblyai_engine import AssemblyAIRecognitionEngine

__all__ = ['AssemblyAIRecognitionEngine']

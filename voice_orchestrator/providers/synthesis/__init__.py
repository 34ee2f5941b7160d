from .pyttsx3_engine import Pyttsx3SynthesisEngine

__all__ = ['Pyttsx3SynthesisEngine']

from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.factory import RecognitionClientFactory
from textlens.recognition.recognizer import Recognizer

__all__ = ["BaseRecognitionClient", "RecognitionClientFactory", "Recognizer"]

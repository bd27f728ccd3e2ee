from .gain import hearing_sensitivity, safe_gain
from .master import MasterBus
from .sequence import SequencePlayer
from .voices import VoiceReconciler

__all__ = ["hearing_sensitivity", "safe_gain", "MasterBus", "SequencePlayer", "VoiceReconciler"]

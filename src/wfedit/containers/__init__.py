"""
Result containers.
"""
from wfedit.containers.alignment import Alignment, EditOp, ScriptError

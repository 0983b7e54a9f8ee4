"""Adapter between a :class:`~nlpbridge.problem.Problem` and an NLP engine."""

from nlpbridge.adapter.buffer import EvaluationBuffer, Quantity
from nlpbridge.adapter.derivatives import DerivativeCheck, check_jacobian
from nlpbridge.adapter.options import AdapterOptions
from nlpbridge.adapter.outcome import (
    Outcome,
    SolverFailure,
    SolverFatal,
    SolverResult,
    SolverResultWithWarnings,
    SolverReturn,
    failure_reason,
    map_outcome,
)
from nlpbridge.adapter.sparsity import (
    DenseSparsityBuilder,
    SparseSparsityBuilder,
    synthesize_point,
)
from nlpbridge.adapter.structure import StructuralAdapter
from nlpbridge.adapter.tnlp import IterationData, NlpInfo, Tnlp
from nlpbridge.adapter.trace import LoggingTraceSink, RecordingTraceSink, TraceSink

__all__ = [
    "AdapterOptions",
    "DenseSparsityBuilder",
    "DerivativeCheck",
    "EvaluationBuffer",
    "IterationData",
    "LoggingTraceSink",
    "NlpInfo",
    "Outcome",
    "Quantity",
    "RecordingTraceSink",
    "SolverFailure",
    "SolverFatal",
    "SolverResult",
    "SolverResultWithWarnings",
    "SolverReturn",
    "SparseSparsityBuilder",
    "StructuralAdapter",
    "Tnlp",
    "TraceSink",
    "check_jacobian",
    "failure_reason",
    "map_outcome",
    "synthesize_point",
]

"""
Controller State Models
=======================

Discrete states used by the sampling gate and the dispatch controller.

Core Concepts:
    - DispatchState: Whether a completion request is currently in flight
    - GateDecision: What the sampling gate decided for one frame candidate
    - PromptMode: Which prompt template the controller renders

Transitions:
    IDLE → SENDING:  the gate admits a frame while nothing is in flight
    SENDING → IDLE:  the stream reaches a terminal chunk or fails

Accumulation is not a separate state: it is what the gate does with
frames that arrive while the controller is SENDING.
"""

from enum import Enum


class DispatchState(str, Enum):
    """
    Dispatch controller states.

    Attributes:
        IDLE: No request in flight, the next admitted frame starts a cycle
        SENDING: A completion request is streaming
    """

    IDLE = "IDLE"
    SENDING = "SENDING"


class GateDecision(str, Enum):
    """
    Sampling gate verdict for a single frame candidate.

    Attributes:
        DISPATCH: Frame starts a new cycle
        ACCUMULATE: Frame is buffered for the next cycle
        DROP: Frame is discarded
    """

    DISPATCH = "DISPATCH"
    ACCUMULATE = "ACCUMULATE"
    DROP = "DROP"


class PromptMode(str, Enum):
    """
    Prompt template selector.

    Attributes:
        LOCALIZED: Japanese advertising-advisor template
        ENGLISH: English advertising-advisor template
    """

    LOCALIZED = "localized"
    ENGLISH = "english"

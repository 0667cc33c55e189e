"""
Error hierarchy for KeyGrad.

Gradient checks can fail for two fundamentally different reasons, and
callers must be able to tell them apart:

- the function under test is wrong (its analytic gradients disagree with
  numerical estimates, its gradients are disconnected from the graph, it
  leaks graph nodes, ...). These are `GradientCheckError`s and are the
  expected outcome of a failing test.
- the check itself was set up incorrectly (non-leaf inputs, an output that
  aliases an input, mismatched argument counts, ...). These are
  `GradientCheckPreconditionError`s and are raised before any comparison
  runs.

A third category, `NumericalGradientContractError`, signals that the
numerical gradient estimator broke its own contract. It derives from
`AssertionError` on purpose: it is a programmer error inside the library,
not information about the function under test.
"""


class KeyGradError(RuntimeError):
    """
    Base class of all errors raised by KeyGrad.
    """


class GradientCheckError(KeyGradError):
    """
    Raised when a gradient check fails.

    The message always carries a fully rendered diagnostic (indices,
    tensors, tolerances) so that the failure can be acted on without
    re-running the check.
    """


class ArrayBodyLeakError(GradientCheckError):
    """
    Raised when array bodies allocated inside a leak detection scope are
    still alive after the scope has closed.

    Attributes
    ----------
    alive_count : int
        Number of array bodies that survived the scope.
    """

    def __init__(self, message: str, alive_count: int) -> None:
        """
        Initialize the ArrayBodyLeakError.

        Parameters
        ----------
        message : str
            Rendered report naming the surviving array bodies.
        alive_count : int
            Number of surviving array bodies.
        """
        super().__init__(message)
        self.alive_count = alive_count


class GradientCheckPreconditionError(KeyGradError):
    """
    Raised when a gradient check is invoked incorrectly.

    Precondition violations fail fast on the first detection and are not
    aggregated with other failures.
    """


class LeakDetectionScopeError(KeyGradError):
    """
    Raised when leak detection scopes are nested.
    """


class NumericalGradientContractError(AssertionError):
    """
    Raised when the numerical gradient estimator returns gradients whose
    count, shape or dtype does not match the inputs.

    If you are trapped here, the numerical gradient implementation itself
    is broken.
    """

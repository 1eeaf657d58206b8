class ScenarioTreeError(Exception):
    """
    Base class of all errors raised while checking or building a scenario tree
    """


class StructureError(ScenarioTreeError, ValueError):
    """
    Illegal nodal partition matrix
    """

    def __init__(self, message, rule=None, row=None, column=None):
        """
        :param message: description of the violation
        :param rule: name of the violated rule (e.g. `root`, `order`, `stage`, `leaves`, `refinement`)
        :param row: row (stage) of the offending cell, if any
        :param column: column (scenario) of the offending cell, if any
        """
        self.rule = rule
        self.row = row
        self.column = column
        where = []
        if row is not None:
            where.append(f"row {row}")
        if column is not None:
            where.append(f"column {column}")
        prefix = f"[{rule}] " if rule is not None else ""
        suffix = f" (at {', '.join(where)})" if where else ""
        super().__init__(prefix + message + suffix)


class DataError(ScenarioTreeError, ValueError):
    """
    Realization data is empty, non-finite or does not match the structure
    """


class ConfigError(ScenarioTreeError, ValueError):
    """
    Invalid hyperparameter
    """


class FittingError(ScenarioTreeError, RuntimeError):
    """
    The neural gas iteration was aborted
    """


class AnnealingWarning(UserWarning):
    """
    Annealing schedule grows instead of decaying
    """

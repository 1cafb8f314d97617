"""
Parser for the Qucs dataset text format.

A dataset is a version header followed by vector blocks::

    <Qucs Dataset 0.0.19>
    <indep frequency 3>
      +1.00000000000000e+09
      ...
    </indep>
    <dep S[1,1] frequency>
      +5.0e-01-j1.0e-01
      ...
    </dep>

Independent vectors are sweep axes, dependent vectors are results over
them. Parsing never raises: problems with the text end up in the
``errors`` and ``warnings`` of the returned Dataset.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple

import numpy as np

from .errors import VectorNotFoundError

logger = logging.getLogger(__name__)


class SimulationStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"
    PARSE_ERROR = "parse_error"
    NOT_RUN = "not_run"


@dataclass(frozen=True, eq=False)
class DataVector:
    """
    One named vector from a dataset.

    Attributes:
        name: Vector name as written by the solver (e.g. ``_net1.V``)
        values: Read-only complex array
        dependencies: Names of the independent vectors this one is swept over
        is_independent: True for sweep axes
    """
    name: str
    values: np.ndarray
    dependencies: Tuple[str, ...] = ()
    is_independent: bool = False

    def __len__(self):
        return len(self.values)

    @property
    def real(self):
        return self.values.real

    @property
    def imag(self):
        return self.values.imag


def _make_vector(name, values, dependencies=(), is_independent=False):
    array = np.array(values, dtype=complex)
    array.setflags(write=False)
    return DataVector(name, array, tuple(dependencies), is_independent)


@dataclass(frozen=True, eq=False)
class Dataset:
    """Parsed solver output."""
    status: SimulationStatus
    version: str = ""
    independent_vars: Mapping[str, DataVector] = field(default_factory=lambda: MappingProxyType({}))
    dependent_vars: Mapping[str, DataVector] = field(default_factory=lambda: MappingProxyType({}))
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    raw_output: str = ""

    @classmethod
    def not_run(cls, reason, raw_output=""):
        """Dataset for a simulation that never started."""
        return cls(SimulationStatus.NOT_RUN, errors=(reason,), raw_output=raw_output)

    def get_vector(self, name):
        if name in self.independent_vars:
            return self.independent_vars[name]
        if name in self.dependent_vars:
            return self.dependent_vars[name]
        raise VectorNotFoundError(name, self.list_vectors())

    def get_complex_vector(self, name):
        return self.get_vector(name).values

    def get_real_vector(self, name):
        return self.get_vector(name).values.real

    def get_imag_vector(self, name):
        return self.get_vector(name).values.imag

    def list_vectors(self):
        """All vector names, independent ones first."""
        return list(self.independent_vars) + list(self.dependent_vars)

    def has_errors(self):
        return self.status != SimulationStatus.SUCCESS or bool(self.errors)

    @property
    def is_success(self):
        return self.status == SimulationStatus.SUCCESS

    def __contains__(self, name):
        return name in self.independent_vars or name in self.dependent_vars

    def summary(self):
        """Multi-line human-readable description of the dataset."""
        lines = [f"Status: {self.status.name}"]
        if self.version:
            lines.append(f"Version: {self.version}")
        lines.append(f"Independent variables ({len(self.independent_vars)}):")
        for name, vector in self.independent_vars.items():
            lines.append(f"  - {name}: {len(vector)} points")
        lines.append(f"Dependent variables ({len(self.dependent_vars)}):")
        for name, vector in self.dependent_vars.items():
            deps = ", ".join(vector.dependencies) or "none"
            lines.append(f"  - {name}: {len(vector)} points (depends on: {deps})")
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            lines.extend(f"  - {message}" for message in self.errors)
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            lines.extend(f"  - {message}" for message in self.warnings)
        return "\n".join(lines)

    def __repr__(self):
        return (
            f"Dataset({self.status.name}, {len(self.independent_vars)} independent, "
            f"{len(self.dependent_vars)} dependent, {len(self.errors)} errors)"
        )


_HEADER_RE = re.compile(r"<(?:Qucs\s+)?Dataset\s+([^>]+)>", re.IGNORECASE)
_INDEP_RE = re.compile(r"^<indep\s+(\S+)\s+(\d+)\s*>$")
_DEP_RE = re.compile(r"^<dep\s+(\S+?)((?:\s+[^\s>]+)*)\s*>$")
_IMAG_MARKER_RE = re.compile(r"[+-]j")
_NUMBER_RE = re.compile(r"^[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf|nan)$", re.IGNORECASE)


def _to_float(text, original):
    if not _NUMBER_RE.match(text):
        raise ValueError(f"Not a dataset number: {original!r}")
    return float(text)


def parse_value(text):
    """
    Parse one dataset number.

    Real values look like ``+1.5e-03``; complex values append the imaginary
    part after a signed ``j``: ``+1.0e+00-j2.0e-01``.

    Raises:
        ValueError: if the text is not a number in this notation
    """
    s = text.strip()
    marker = _IMAG_MARKER_RE.search(s)
    if marker is None:
        return complex(_to_float(s, text), 0.0)
    real_part = s[:marker.start()]
    imag_part = s[marker.start()] + s[marker.end():]
    return complex(_to_float(real_part, text), _to_float(imag_part, text))


class _Block:
    __slots__ = ("kind", "name", "expected", "dependencies", "values", "line_num")

    def __init__(self, kind, name, expected, dependencies, line_num):
        self.kind = kind
        self.name = name
        self.expected = expected
        self.dependencies = dependencies
        self.values = []
        self.line_num = line_num


class _DatasetParser:
    """Line-oriented state machine behind ``parse_dataset``."""

    def __init__(self):
        self.version = ""
        self.independent = {}
        self.dependent = {}
        self.errors = []
        self.warnings = []
        self.saw_error_line = False
        self.block = None

    def feed(self, line_num, line):
        stripped = line.strip()
        if not stripped:
            return

        header = _HEADER_RE.match(stripped)
        if header:
            if not self.version:
                self.version = header.group(1).strip()
            return

        indep = _INDEP_RE.match(stripped)
        if indep:
            self._open("indep", indep.group(1), int(indep.group(2)), (), line_num)
            return

        dep = _DEP_RE.match(stripped)
        if dep:
            self._open("dep", dep.group(1), None, tuple(dep.group(2).split()), line_num)
            return

        lower = stripped.lower()
        if lower in ("</indep>", "</dep>"):
            self._close(lower[2:-1], line_num)
            return

        if self.block is None:
            if lower.startswith(("error", "fatal")) or "error:" in lower:
                self.errors.append(stripped)
                self.saw_error_line = True
            elif lower.startswith("warning") or "warning:" in lower:
                self.warnings.append(stripped)
            else:
                logger.debug("Ignoring line %d outside any vector block: %r", line_num, stripped)
            return

        if stripped.startswith("<"):
            self.warnings.append(f"Unexpected tag inside vector '{self.block.name}' at line {line_num}: {stripped}")
            return

        try:
            self.block.values.append(parse_value(stripped))
        except ValueError:
            self.warnings.append(f"Failed to parse value at line {line_num}: '{stripped}'")

    def _open(self, kind, name, expected, dependencies, line_num):
        if self.block is not None:
            self.warnings.append(
                f"Vector '{self.block.name}' opened at line {self.block.line_num} "
                f"was not closed before line {line_num}"
            )
            self._commit()
        self.block = _Block(kind, name, expected, dependencies, line_num)

    def _close(self, kind, line_num):
        if self.block is None:
            self.warnings.append(f"Unexpected closing tag </{kind}> at line {line_num}")
            return
        if self.block.kind != kind:
            self.warnings.append(
                f"Vector '{self.block.name}' opened as <{self.block.kind}> "
                f"but closed with </{kind}> at line {line_num}"
            )
        self._commit()

    def _commit(self):
        block = self.block
        self.block = None
        if block.kind == "indep":
            target, other, other_kind = self.independent, self.dependent, "dependent"
            if len(block.values) != block.expected:
                self.warnings.append(
                    f"Vector '{block.name}' declares {block.expected} values but has {len(block.values)}"
                )
        else:
            target, other, other_kind = self.dependent, self.independent, "independent"

        if block.name in other:
            del other[block.name]
            self.warnings.append(
                f"Vector '{block.name}' redefined at line {block.line_num}; "
                f"the earlier {other_kind} definition was dropped"
            )
        elif block.name in target:
            self.warnings.append(f"Vector '{block.name}' redefined at line {block.line_num}; keeping the last one")

        target[block.name] = _make_vector(
            block.name, block.values, block.dependencies, is_independent=(block.kind == "indep")
        )

    def finish(self, raw_output):
        if self.block is not None:
            self.warnings.append(
                f"Vector '{self.block.name}' opened at line {self.block.line_num} was never closed"
            )
            self._commit()

        for vector in self.dependent.values():
            missing = [name for name in vector.dependencies if name not in self.independent]
            if missing:
                self.warnings.append(
                    f"Vector '{vector.name}' depends on unknown independent vector(s): {', '.join(missing)}"
                )

        status = SimulationStatus.ERROR if self.saw_error_line else SimulationStatus.SUCCESS
        if not self.version and not self.independent and not self.dependent:
            if not self.errors:
                self.errors.append("No valid dataset found in output")
            status = SimulationStatus.PARSE_ERROR

        for message in self.errors:
            logger.debug("Dataset error: %s", message)
        for message in self.warnings:
            logger.debug("Dataset warning: %s", message)

        return Dataset(
            status=status,
            version=self.version,
            independent_vars=MappingProxyType(self.independent),
            dependent_vars=MappingProxyType(self.dependent),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            raw_output=raw_output,
        )


def parse_dataset(raw_output):
    """
    Parse solver output into a Dataset. Never raises.

    Args:
        raw_output: Full text the solver wrote

    Returns:
        Dataset with status SUCCESS, ERROR (error lines were seen) or
        PARSE_ERROR (nothing usable was found)
    """
    if raw_output is None:
        raw_output = ""
    elif isinstance(raw_output, (bytes, bytearray)):
        raw_output = raw_output.decode(errors="replace")
    if not raw_output.strip():
        logger.debug("Empty solver output")
        return Dataset(SimulationStatus.PARSE_ERROR, errors=("Empty output received",), raw_output=raw_output)

    parser = _DatasetParser()
    for line_num, line in enumerate(raw_output.splitlines(), start=1):
        parser.feed(line_num, line)
    dataset = parser.finish(raw_output)
    logger.debug("Parsed %r", dataset)
    return dataset

"""
Solver boundary: run a netlist through an external simulator and hand back
a parsed Dataset.
"""

import dataclasses
import logging
import os
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod

from .dataset import Dataset, SimulationStatus, parse_dataset

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "qucsator"


class SimulatorBackend(ABC):
    """
    Abstract base class for circuit simulation backends.

    This defines the interface that all simulation backends must implement.
    """

    @abstractmethod
    def run(self, netlist: str, **kwargs) -> Dataset:
        """
        Run a netlist through the solver.

        Args:
            netlist: Complete solver input, analysis statements included
            **kwargs: Backend-specific options

        Returns:
            Dataset: Parsed output. Solver failures are reported through its
            status and errors, not raised.
        """
        pass


class QucsatorBackend(SimulatorBackend):
    """
    Backend that runs the qucsator command-line solver.

    Args:
        executable: Program name or path. Defaults to the QUCSATOR environment
            variable, then ``qucsator`` on PATH.
        keep_temp_files: Keep the netlist file for debugging
        timeout: Seconds before the solver is killed (None waits forever)
        extra_args: Additional command-line arguments
    """

    def __init__(self, executable=None, keep_temp_files=False, timeout=None, extra_args=()):
        self.executable = executable or os.environ.get("QUCSATOR", DEFAULT_EXECUTABLE)
        self.keep_temp_files = keep_temp_files
        self.timeout = timeout
        self.extra_args = tuple(extra_args)

    def run(self, netlist: str, **kwargs) -> Dataset:
        keep_temp_files = kwargs.get("keep_temp_files", self.keep_temp_files)
        timeout = kwargs.get("timeout", self.timeout)

        resolved = shutil.which(self.executable)
        if resolved is None:
            logger.warning("Solver executable '%s' not found", self.executable)
            return Dataset.not_run(f"Solver executable '{self.executable}' not found")

        # Create temporary netlist file
        with tempfile.NamedTemporaryFile(mode="w", suffix=".net", delete=False) as f:
            f.write(netlist)
            netlist_file = f.name

        command = [resolved, "-i", netlist_file, *self.extra_args]
        logger.info("Running %s", " ".join(command))
        try:
            try:
                completed = subprocess.run(command, capture_output=True, text=True, timeout=timeout)
            except subprocess.TimeoutExpired as e:
                logger.warning("Solver timed out after %s s", timeout)
                partial = _as_text(e.stdout)
                dataset = parse_dataset(partial)
                return dataclasses.replace(
                    dataset,
                    status=SimulationStatus.ERROR,
                    errors=dataset.errors + (f"Solver timed out after {timeout} s",),
                )
            except OSError as e:
                logger.warning("Could not start solver: %s", e)
                return Dataset.not_run(f"Could not start solver '{resolved}': {e}")
        finally:
            if keep_temp_files:
                logger.info("Keeping netlist file %s", netlist_file)
            elif os.path.exists(netlist_file):
                os.unlink(netlist_file)

        output = completed.stdout or ""
        if completed.stderr:
            output = f"{output}\n{completed.stderr}"
        dataset = parse_dataset(output)

        if completed.returncode != 0 and dataset.status == SimulationStatus.SUCCESS:
            dataset = dataclasses.replace(
                dataset,
                status=SimulationStatus.ERROR,
                errors=dataset.errors + (f"Solver exited with code {completed.returncode}",),
            )
        logger.info("Solver finished: %r", dataset)
        return dataset


def _as_text(output):
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output


def run_simulation(netlist, analysis, nodes=None, backend=None, **options):
    """
    Run a netlist and extract the typed result for one analysis.

    Args:
        netlist: Solver input text
        analysis: AnalysisKind or its value
        nodes: NodeTable or Circuit used to bind pins
        backend: Simulation backend (defaults to QucsatorBackend)
        **options: Passed to ``extract_result``
    """
    from .results import extract_result
    backend = backend or QucsatorBackend()
    dataset = backend.run(netlist)
    return extract_result(dataset, analysis, nodes, **options)


def check_simulation_requirements(executable=None):
    """Check if the solver executable is available."""
    executable = executable or os.environ.get("QUCSATOR", DEFAULT_EXECUTABLE)
    path = shutil.which(executable)
    if path is None:
        return False, f"Solver '{executable}' not found on PATH. Install Qucs-S or set QUCSATOR."
    return True, f"Simulation requirements satisfied ({path})"

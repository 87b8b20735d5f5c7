# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Exception hierarchy for the distance approach formulator."""

from __future__ import annotations


class ObcaError(Exception):
    """Base exception class for formulator errors."""


class FormulationError(ObcaError, ValueError):
    """The problem data cannot be turned into a formulation.

    Raised at construction time for malformed dimensions, non-positive
    horizon or edge counts, warm starts with the wrong shape and invalid
    configuration values.
    """


class EvaluationError(ObcaError):
    """A solver callback reported failure."""

    def __init__(self, callback: str, message: str = "") -> None:
        self.callback = callback
        self.message = message
        super().__init__(f"{callback} failed" + (f": {message}" if message else ""))


class ResultsNotReadyError(ObcaError, RuntimeError):
    """Results were requested before the solver finalized the solution."""

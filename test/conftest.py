"""
Test configuration for MicroScript runtime tests
"""

import io
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from environment import Environment
from utilities import make_execution_context


@pytest.fixture
def env():
  """Fresh root scope"""
  return Environment()


@pytest.fixture
def output():
  return io.StringIO()


@pytest.fixture
def context(output):
  """Context capturing console output and error reports in one buffer"""
  return make_execution_context(output=output, error_output=output)

# Zero Trust Decision Engine - Demo Scenarios
# Sample requests and expected decisions for demonstration

from .demo_data import load_demo_scenarios
from .scenario_runner import run_scenarios

__all__ = ['load_demo_scenarios', 'run_scenarios']

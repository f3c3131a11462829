"""
eleva_availability - bookable start times for expert consultations.
"""

__version__ = "0.1.0"

"""Atelier Tracker - jewellery enquiry and order pipeline tracker."""

__version__ = "1.0.0"

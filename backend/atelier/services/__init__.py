"""Atelier Tracker - Services"""

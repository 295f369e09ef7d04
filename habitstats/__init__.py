"""Habit Stats Server - statistics and streaks over habit logs"""

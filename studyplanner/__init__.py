"""Application package for the study planner.

The server side (FastAPI controllers, services, repositories and SQLModel
tables) lives at the package top level; the Pomodoro timer and its HTTP
client live in `studyplanner.client`.
"""

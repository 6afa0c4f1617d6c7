"""
Core building blocks shared by the sync engine and the terminal front-end.
"""

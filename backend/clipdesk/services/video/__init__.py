"""Video distribution workflow: eligibility, targeting, state machine"""

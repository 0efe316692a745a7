"""
Domain abstractions: executor protocol, tasks, results and the dispatcher contract.
"""

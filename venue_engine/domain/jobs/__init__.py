"""Scheduled job domain - the job store boundary and planner result schemas"""

"""
Ghost Automation CLI
"""

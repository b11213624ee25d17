"""
dfreco: audio regression harness for Dialogflow intent detection
"""

__version__ = "0.3.0"

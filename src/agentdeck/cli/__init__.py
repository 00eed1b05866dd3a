"""agentdeck command line interface"""

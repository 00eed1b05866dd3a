"""agentdeck backend: terminal session core and its collaborators"""

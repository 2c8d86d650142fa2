"""
Boardbook - governance record-keeping for an organization's board.
"""

"""
geserver - itch.io build tracker, announcement feed and launcher mailbox
"""

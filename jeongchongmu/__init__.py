"""
Client-side core for the Jeongchongmu group expense backend.
"""

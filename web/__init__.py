"""Web API package"""

"""clipdesk backend package"""

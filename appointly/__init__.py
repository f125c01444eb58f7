"""Appointly - appointment scheduling and notification core"""

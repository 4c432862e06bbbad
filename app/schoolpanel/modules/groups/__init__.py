"""
Groups module: Groups CRUD plus user and subject assignment.
"""

"""
Producer side of the asynq Redis protocol.

This package owns the key layout and the atomic write that makes a task visible
to asynq consumers:
- task record hash + pending list for immediate tasks
- task record hash + scheduled sorted set for delayed tasks
- optional unique-key lock staged in the same transaction
"""

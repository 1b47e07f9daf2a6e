"""
Database Schema Reference
=========================

This file provides a quick reference for all database tables and columns.
For actual SQLAlchemy models, see: studyflow/db/models.py

"""

# ============================================================================
# USER_PROFILES - One row per identity provider user
# ============================================================================
#
# | Column                | Type              | Constraints                    |
# |-----------------------|-------------------|--------------------------------|
# | id                    | VARCHAR(255)      | PRIMARY KEY (identity user id) |
# | email                 | VARCHAR(320)      | NOT NULL                       |
# | name                  | VARCHAR(255)      | NULLABLE                       |
# | is_premium            | BOOLEAN           | NOT NULL, DEFAULT FALSE        |
# | documents_processed   | INTEGER           | NOT NULL, DEFAULT 0            |
# | stories_generated     | INTEGER           | NOT NULL, DEFAULT 0            |
# | subscription_status   | VARCHAR(32)       | NOT NULL, DEFAULT 'free'       |
# | subscription_id       | VARCHAR(255)      | NULLABLE                       |
# | subscription_end_date | TIMESTAMP(TZ)     | NULLABLE                       |
# | created_at            | TIMESTAMP(TZ)     | NOT NULL, DEFAULT now()        |
# | updated_at            | TIMESTAMP(TZ)     | NOT NULL, DEFAULT now()        |
#
# Written by: first authenticated request (create), narration and pipeline
# (counters), payment webhooks (plan fields).


# ============================================================================
# DOCUMENTS - Uploaded PDFs and their ingestion output
# ============================================================================
#
# | Column            | Type          | Constraints                            |
# |-------------------|---------------|----------------------------------------|
# | id                | VARCHAR(36)   | PRIMARY KEY                            |
# | user_id           | VARCHAR(255)  | NOT NULL, FK(user_profiles.id), INDEX  |
# | title             | TEXT          | NOT NULL                               |
# | file_name         | TEXT          | NOT NULL                               |
# | file_url          | TEXT          | NOT NULL (object storage path)         |
# | file_size         | INTEGER       | NULLABLE (bytes)                       |
# | content_type      | VARCHAR(32)   | NOT NULL, DEFAULT 'pdf'                |
# | extracted_text    | TEXT          | NULLABLE                               |
# | summary           | TEXT          | NULLABLE                               |
# | processing_status | VARCHAR(20)   | NOT NULL, DEFAULT 'pending'            |
# | created_at        | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                |
# | updated_at        | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                |
#
# processing_status: pending -> extracted -> summarized -> completed
#                    any non-terminal state -> failed


# ============================================================================
# FLASHCARDS
# ============================================================================
#
# | Column      | Type          | Constraints                                  |
# |-------------|---------------|----------------------------------------------|
# | id          | VARCHAR(36)   | PRIMARY KEY                                  |
# | document_id | VARCHAR(36)   | NOT NULL, FK(documents.id) CASCADE, INDEX    |
# | user_id     | VARCHAR(255)  | NOT NULL, FK(user_profiles.id), INDEX        |
# | front       | TEXT          | NOT NULL                                     |
# | back        | TEXT          | NOT NULL                                     |
# | hint        | TEXT          | NULLABLE                                     |
# | difficulty  | VARCHAR(10)   | NOT NULL, DEFAULT 'medium' (easy/medium/hard)|
# | category    | VARCHAR(255)  | NULLABLE                                     |
# | created_at  | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                      |
# | updated_at  | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                      |


# ============================================================================
# STUDY_SESSIONS - Append-only
# ============================================================================
#
# | Column           | Type          | Constraints                             |
# |------------------|---------------|-----------------------------------------|
# | id               | VARCHAR(36)   | PRIMARY KEY                             |
# | user_id          | VARCHAR(255)  | NOT NULL, FK(user_profiles.id), INDEX   |
# | document_id      | VARCHAR(36)   | NULLABLE, FK(documents.id) SET NULL     |
# | session_type     | VARCHAR(32)   | NOT NULL, DEFAULT 'flashcards'          |
# | cards_studied    | INTEGER       | NOT NULL, DEFAULT 0                     |
# | correct_answers  | INTEGER       | NOT NULL, DEFAULT 0                     |
# | session_duration | INTEGER       | NOT NULL, DEFAULT 0 (seconds)           |
# | created_at       | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                 |


# ============================================================================
# STORIES - Generated narration
# ============================================================================
#
# | Column         | Type          | Constraints                               |
# |----------------|---------------|-------------------------------------------|
# | id             | VARCHAR(36)   | PRIMARY KEY                               |
# | user_id        | VARCHAR(255)  | NOT NULL, FK(user_profiles.id), INDEX     |
# | input_text     | TEXT          | NOT NULL                                  |
# | output_story   | TEXT          | NOT NULL                                  |
# | narration_mode | VARCHAR(20)   | NOT NULL (focus/balanced/engaging/        |
# |                |               |           doc_theatre)                    |
# | source         | VARCHAR(10)   | NOT NULL, DEFAULT 'api' (api/pdf)         |
# | audio_url      | TEXT          | NULLABLE; set once audio is synthesized   |
# | created_at     | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                   |


# ============================================================================
# SUBSCRIPTIONS - Payment processor ledger, written by webhooks only
# ============================================================================
#
# | Column                   | Type          | Constraints                     |
# |--------------------------|---------------|---------------------------------|
# | id                       | VARCHAR(36)   | PRIMARY KEY                     |
# | user_id                  | VARCHAR(255)  | NOT NULL, FK(user_profiles.id)  |
# | external_subscription_id | VARCHAR(255)  | NOT NULL, UNIQUE                |
# | external_order_id        | VARCHAR(255)  | NULLABLE                        |
# | external_product_id      | VARCHAR(255)  | NULLABLE                        |
# | status                   | VARCHAR(32)   | NOT NULL, DEFAULT 'inactive'    |
# | plan_type                | VARCHAR(64)   | NOT NULL, DEFAULT 'premium'     |
# | current_period_start     | TIMESTAMP(TZ) | NULLABLE                        |
# | current_period_end       | TIMESTAMP(TZ) | NULLABLE                        |
# | amount                   | INTEGER       | NOT NULL, DEFAULT 0 (cents)     |
# | currency                 | VARCHAR(3)    | NOT NULL, DEFAULT 'USD'         |
# | created_at               | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()         |
# | updated_at               | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()         |


# ============================================================================
# WEBHOOK_EVENTS - Applied payment events (redelivery guard)
# ============================================================================
#
# | Column      | Type          | Constraints                                  |
# |-------------|---------------|----------------------------------------------|
# | event_id    | VARCHAR(255)  | PRIMARY KEY (processor event id)             |
# | event_type  | VARCHAR(64)   | NOT NULL                                     |
# | received_at | TIMESTAMP(TZ) | NOT NULL, DEFAULT now()                      |


# ============================================================================
# ENTITY RELATIONSHIP
# ============================================================================
#
#  ┌───────────────┐ 1:N  ┌──────────────┐ 1:N  ┌──────────────┐
#  │ user_profiles │─────►│  documents   │─────►│  flashcards  │
#  ├───────────────┤      ├──────────────┤      ├──────────────┤
#  │ id (PK)       │      │ id (PK)      │      │ id (PK)      │
#  │ email         │      │ user_id (FK) │      │ document_id  │
#  │ plan fields   │      │ status       │      │ user_id (FK) │
#  │ counters      │      │ text/summary │      │ front/back   │
#  └───────────────┘      └──────────────┘      └──────────────┘
#     │      │  1:N                 ▲ 0..1
#     │      └──────────────► study_sessions
#     │ 1:N
#     ├──────────────► stories
#     │ 1:N
#     └──────────────► subscriptions

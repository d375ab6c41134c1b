from pymongo import MongoClient, ASCENDING, DESCENDING
import structlog

logger = structlog.get_logger(__name__)


class Database:
    def __init__(self):
        self.client = None
        self.db = None

    def initialize(self, app):
        """Initialize database connection"""
        self.client = MongoClient(app.config['MONGODB_URI'])
        self.db = self.client[app.config['MONGODB_DB']]
        self.create_indexes()
        logger.info("database_initialized", database=app.config['MONGODB_DB'])

    def create_indexes(self):
        """Create indexes used by the model queries"""
        self.db.advisors.create_index("email", unique=True)
        self.db.clients.create_index([("advisor_id", ASCENDING), ("created_at", DESCENDING)])
        self.db.clients.create_index([("advisor_id", ASCENDING), ("email", ASCENDING)])
        self.db.client_invitations.create_index("token", unique=True)
        self.db.client_invitations.create_index([("advisor_id", ASCENDING), ("client_id", ASCENDING)])
        self.db.plans.create_index([("client_id", ASCENDING), ("created_at", DESCENDING)])
        self.db.meetings.create_index([("advisor_id", ASCENDING), ("created_at", DESCENDING)])
        self.db.meetings.create_index([("client_id", ASCENDING), ("created_at", DESCENDING)])
        self.db.meetings.create_index("daily_room_id")
        self.db.meetings.create_index("room_name")
        self.db.transcriptions.create_index("daily_transcript_id", unique=True)
        self.db.estate_information.create_index("client_id", unique=True)
        self.db.loe_automations.create_index("access_token", unique=True)
        self.db.mutual_fund_exit_strategies.create_index([("client_id", ASCENDING), ("fund_id", ASCENDING)])
        self.db.mutual_fund_exit_strategies.create_index([("advisor_id", ASCENDING), ("status", ASCENDING)])
        self.db.mutual_fund_recommendations.create_index([("client_id", ASCENDING), ("created_at", DESCENDING)])

    def get_db(self):
        """Get database instance"""
        return self.db

    def close(self):
        """Close database connection"""
        if self.client:
            self.client.close()


# Global database instance
db_instance = Database()

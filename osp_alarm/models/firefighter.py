# osp_alarm/models/firefighter.py
"""
Roster tables owned by the firefighter/training administration.
The alarm flow only reads them: phone numbers for seeding and
training validity for the qualification breakdown.
"""

from sqlalchemy import Column, Integer, String, Date, ForeignKey
from osp_alarm.database import Base


class Firefighter(Base):
    __tablename__ = "firefighters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    surname = Column(String(100), nullable=False)
    phone_number = Column(String(32), index=True)

    def __repr__(self):
        return f"<Firefighter {self.id} {self.name} {self.surname}>"


class Training(Base):
    __tablename__ = "trainings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), unique=True, nullable=False)
    validity_months = Column(Integer)


class FirefighterTraining(Base):
    __tablename__ = "firefighter_trainings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    firefighter_id = Column(Integer, ForeignKey("firefighters.id"), nullable=False, index=True)
    training_id = Column(Integer, ForeignKey("trainings.id"), nullable=False)
    completion_date = Column(Date)
    validity_until = Column(Date)   # NULL = never expires

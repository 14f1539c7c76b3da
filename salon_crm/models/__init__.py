from salon_crm.models.salon import Salon
from salon_crm.models.profile import Profile
from salon_crm.models.customer import Customer
from salon_crm.models.visit import Visit, VisitToken
from salon_crm.models.campaign import Campaign, CampaignRecipient, CampaignTemplate
